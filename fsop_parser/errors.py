from __future__ import annotations


class FsopError(ValueError):
    code = "FSOP_ERROR"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)

    def __str__(self) -> str:
        message = super().__str__()
        if message == self.code:
            return message
        return f"{self.code}: {message}"


class DocumentXmlNotFoundError(FsopError):
    code = "DOCX_DOCUMENT_XML_NOT_FOUND"


class DocumentXmlEmptyError(FsopError):
    code = "DOCX_DOCUMENT_XML_EMPTY"


class InvalidDocxError(FsopError):
    code = "DOCX_INVALID"


class XmlValidationError(FsopError):
    code = "DOCX_XML_MALFORMED"


class EmptyArtifactError(FsopError):
    code = "DOCX_TEMP_FILE_EMPTY"

    def __init__(self, message: str | None = None, code: str | None = None) -> None:
        if code is not None:
            self.code = code
        super().__init__(message)
