from __future__ import annotations


class ResolveError(Exception):
    prefix = "resolver"

    def __init__(self, inner: BaseException | str | None = None) -> None:
        self.inner = inner
        if isinstance(inner, BaseException):
            self.__cause__ = inner
        super().__init__(self._message())

    def _message(self) -> str:
        if self.inner is None:
            return self.prefix
        return f"{self.prefix}: {self.inner}"


class AddrError(ResolveError):
    prefix = "no or invalid IP address string found"


class VersionError(ResolveError):
    prefix = "IP version not requested was returned"


class DnsError(ResolveError):
    prefix = "dns resolver"


class HttpError(ResolveError):
    prefix = "http resolver"


class OtherError(ResolveError):
    prefix = "other resolver"
