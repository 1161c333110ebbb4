import urllib.parse
from typing import Any, Union

from pydantic import GetCoreSchemaHandler
from pydantic_core import CoreSchema, core_schema


class NonNullStr(str):
    """Str class without None values"""

    def __new__(cls, s: str | None):
        if s is None:
            raise ValueError(
                f"Value for {cls} was None. Did you specify your env vars?"
            )
        return str.__new__(cls, s)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> CoreSchema:
        return core_schema.no_info_after_validator_function(cls, handler(str))


class PositiveInt(int):
    """Base for integer identifiers handed out by the venue"""

    def __new__(cls, num: int):
        if isinstance(num, bool) or int(num) != num or num <= 0:
            raise ValueError(f"{num} invalid {cls.__name__}")
        return super(PositiveInt, cls).__new__(cls, num)

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> CoreSchema:
        return core_schema.no_info_after_validator_function(cls, handler(int))


class URL(NonNullStr):
    def add(self, other: Union["URL", str]):
        url1 = self.strip("/")
        url2 = other.strip("/")
        return URL(urllib.parse.urljoin(str(url1 + "/"), str(url2)))

    def add_slash(self):
        """Adds a leading forward slash in front of path if it does not exist"""
        if not self.startswith("/"):
            return URL("/" + self)
        return self

    def __eq__(self, other: "URL"):  # type:ignore[override]
        return self.strip("/") == other.strip("/")

    def __hash__(self):
        return hash((str(self)))
