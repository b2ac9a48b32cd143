from enum import Enum
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Category(str, Enum):
    DISPLAY = "display"
    AUDIO = "audio"
    VIDEO_OLV = "video_olv"
    VIDEO_CTV = "video_ctv"
    HTML5 = "html5"
    UNKNOWN = "unknown"


class CheckStatus(str, Enum):
    PASS = "Pass"
    FAIL = "Fail"
    WARN = "Warn"
    NOT_APPLICABLE = "NotApplicable"


class RecordStatus(str, Enum):
    PROCESSING = "Processing"
    COMPLETED = "Completed"
    ERROR = "Error"


class _CamelModel(BaseModel):
    # stored documents and API payloads use camelCase keys
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ObjectLocator(_CamelModel):
    model_config = ConfigDict(frozen=True)

    bucket: str
    name: str

    def __str__(self) -> str:
        return f"{self.bucket}/{self.name}"


class FileEvent(BaseModel):
    bucket: str
    name: str
    content_type: str | None = None
    size: int | None = None

    # identity, resolved once at ingestion
    content_id: str
    display_name: str

    # set on objects this worker wrote itself (extracted backups)
    derived_from: str | None = None

    @property
    def locator(self) -> ObjectLocator:
        return ObjectLocator(bucket=self.bucket, name=self.name)


class ValidationCheck(_CamelModel):
    model_config = ConfigDict(frozen=True)

    check_name: str
    status: CheckStatus
    message: str
    value: Optional[Union[int, float, str]] = None
    limit: Optional[Union[int, float, str]] = None


class Dimensions(_CamelModel):
    width: int
    height: int

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class Html5Info(_CamelModel):
    primary_html_file: str | None = None
    ad_size_meta: str | None = None
    click_tag_detected: bool = False
    file_count: int = 0
    total_uncompressed_size: int = 0
    backup_image_file: str | None = None
    extracted_backup_content_id: str | None = None


class SideMetadata(_CamelModel):
    content_id: str
    is_ctv: bool = False
    display_name: str | None = None


class AnalysisRecord(_CamelModel):
    content_id: str
    display_name: str
    bucket: str | None = None
    object_name: str | None = None
    is_ctv: bool = False

    category: Category = Category.UNKNOWN
    mime_type: str | None = None
    extension: str | None = None
    size_bytes: int = 0
    dimensions: Dimensions | None = None
    duration: float | None = None
    bitrate_kbps: int | None = None
    frame_rate: float | None = None
    html5_info: Html5Info | None = None

    validation_checks: List[ValidationCheck] = Field(default_factory=list)
    status: RecordStatus = RecordStatus.PROCESSING

    def add_check(
        self,
        check_name: str,
        status: CheckStatus,
        message: str,
        value: int | float | str | None = None,
        limit: int | float | str | None = None,
    ) -> ValidationCheck:
        check = ValidationCheck(
            check_name=check_name,
            status=status,
            message=message,
            value=value,
            limit=limit,
        )
        self.validation_checks.append(check)
        return check

    @property
    def has_failures(self) -> bool:
        return any(c.status == CheckStatus.FAIL for c in self.validation_checks)
