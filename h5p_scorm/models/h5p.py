"""
Pydantic Models for H5P Metadata

Mirror the parts of an H5P package's ``h5p.json`` the converter relies on.
All fields are optional at the model level: presence of the required ones
(``title``, ``mainLibrary``) is checked by the metadata reader, and the
accessors below supply the documented fallbacks.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_TITLE = "H5P Content"
DEFAULT_ORGANIZATION = "H5P Author"
UNKNOWN = "unknown"


class Author(BaseModel):
    """Content author entry"""
    model_config = ConfigDict(frozen=True, extra="ignore")

    name: Optional[str] = Field(None, description="Author display name")
    role: Optional[str] = Field(None, description="Author role")


class LibraryDependency(BaseModel):
    """Entry of ``preloadedDependencies``"""
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    machine_name: str = Field(..., alias="machineName")
    major_version: Optional[int] = Field(None, alias="majorVersion")
    minor_version: Optional[int] = Field(None, alias="minorVersion")

    @property
    def version(self) -> str:
        if self.major_version is None or self.minor_version is None:
            return UNKNOWN
        return f"{self.major_version}.{self.minor_version}"


class ContentType(BaseModel):
    """Resolved main library of a package"""
    model_config = ConfigDict(frozen=True)

    machine_name: str = UNKNOWN
    version: str = UNKNOWN


class H5PMetadata(BaseModel):
    """Parsed ``h5p.json``, read-only once built"""
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    title: Optional[str] = Field(None, description="Content title")
    language: Optional[str] = Field(None, description="Content language code")
    authors: List[Author] = Field(default_factory=list)
    main_library: Optional[str] = Field(None, alias="mainLibrary")
    preloaded_dependencies: List[LibraryDependency] = Field(
        default_factory=list, alias="preloadedDependencies"
    )

    @property
    def display_title(self) -> str:
        if self.title and self.title.strip():
            return self.title
        return DEFAULT_TITLE

    @property
    def organization(self) -> str:
        if self.authors and self.authors[0].name:
            return self.authors[0].name
        return DEFAULT_ORGANIZATION

    @property
    def content_type(self) -> ContentType:
        """Main library resolved against the preloaded dependencies.

        Falls back to ``unknown`` for both fields when ``mainLibrary`` is
        absent or no dependency carries that machine name.
        """
        if not self.main_library:
            return ContentType()
        for dependency in self.preloaded_dependencies:
            if dependency.machine_name == self.main_library:
                return ContentType(
                    machine_name=dependency.machine_name,
                    version=dependency.version,
                )
        return ContentType()
