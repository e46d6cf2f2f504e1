"""
SCORM Package Assembler
Wraps extracted H5P content in the bundled SCORM 1.2 player and zips it
"""

import logging
import shutil
import zipfile
from pathlib import Path
from typing import List
from xml.etree import ElementTree

from ..exceptions import AssemblyError
from ..models.conversion import OutputArtifact, PackageOptions
from ..utils.validation import validate_mastery_score

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "template"
CONTENT_DIRNAME = "workspace"
MANIFEST_FILENAME = "imsmanifest.xml"


class SCORMPackageAssembler:
    """Builds SCORM 1.2 zip packages from extracted H5P content"""

    required_files = (
        MANIFEST_FILENAME,
        "index.html",
        "scorm_api.js",
        "h5p_player.js",
    )

    def __init__(self, template_dir: Path = TEMPLATE_DIR):
        self.template_dir = Path(template_dir)

    def assemble(
        self,
        extraction_dir: Path,
        options: PackageOptions,
        assembly_dir: Path,
        output_dir: Path,
    ) -> OutputArtifact:
        """
        Produce the SCORM zip for one conversion

        Args:
            extraction_dir: Extracted H5P content tree
            options: Package options (title, organization, mastery score...)
            assembly_dir: Scratch directory, cleared before use and removed
                afterwards
            output_dir: Directory receiving the zip

        Returns:
            OutputArtifact: Location, filename and size of the zip

        Raises:
            InvalidConfigurationError: Mastery score outside 0..100
            AssemblyError: Any copy, manifest or zip failure
        """
        validate_mastery_score(options.mastery_score)
        extraction_dir = Path(extraction_dir)
        assembly_dir = Path(assembly_dir)
        output_dir = Path(output_dir)
        output_path = output_dir / options.output_filename

        logger.info("Assembling SCORM package '%s'", options.title)
        try:
            self._reset_directory(assembly_dir)

            logger.info("Copying player template")
            shutil.copytree(
                self.template_dir,
                assembly_dir,
                dirs_exist_ok=True,
                ignore=shutil.ignore_patterns("__pycache__", "*.py[co]"),
            )

            logger.info("Copying H5P content")
            shutil.copytree(
                extraction_dir, assembly_dir / CONTENT_DIRNAME, dirs_exist_ok=True
            )

            logger.info("Creating SCORM manifest")
            self._create_imsmanifest(assembly_dir, options)
            self._validate_package_structure(assembly_dir)

            logger.info("Creating ZIP package")
            output_dir.mkdir(parents=True, exist_ok=True)
            self._zip_directory(assembly_dir, output_path)

            artifact = OutputArtifact(
                path=output_path,
                filename=options.output_filename,
                size=output_path.stat().st_size,
            )
        except Exception as error:
            logger.error("Failed to assemble SCORM package: %s", error, exc_info=True)
            self._discard(output_path)
            raise AssemblyError(
                f"Failed to assemble SCORM package: {error}"
            ) from error
        finally:
            self._discard(assembly_dir)

        logger.info(
            "SCORM package %s created (%d bytes)", artifact.filename, artifact.size
        )
        return artifact

    def render_manifest(self, options: PackageOptions, files: List[str]) -> str:
        """Render imsmanifest.xml listing ``files`` in the single SCO resource"""
        file_entries = "".join(
            f'\n            <file href="{self._escape_xml(name)}"/>' for name in files
        )
        title = self._escape_xml(options.title)
        organization = self._escape_xml(options.organization)
        language = self._escape_xml(options.language)
        identifier = self._escape_xml(options.identifier)
        starting_page = self._escape_xml(options.starting_page)

        return f"""<?xml version="1.0" encoding="UTF-8"?>
<manifest identifier="{identifier}" version="1"
          xmlns="http://www.imsproject.org/xsd/imscp_rootv1p1p2"
          xmlns:adlcp="http://www.adlnet.org/xsd/adlcp_rootv1p2"
          xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance"
          xsi:schemaLocation="http://www.imsproject.org/xsd/imscp_rootv1p1p2 imscp_rootv1p1p2.xsd
                              http://www.imsglobal.org/xsd/imsmd_rootv1p2p1 imsmd_rootv1p2p1.xsd
                              http://www.adlnet.org/xsd/adlcp_rootv1p2 adlcp_rootv1p2.xsd">

    <metadata>
        <schema>ADL SCORM</schema>
        <schemaversion>{self._escape_xml(options.version)}</schemaversion>
        <lom xmlns="http://www.imsglobal.org/xsd/imsmd_rootv1p2p1">
            <general>
                <title>
                    <langstring xml:lang="{language}">{title}</langstring>
                </title>
                <language>{language}</language>
            </general>
            <lifeCycle>
                <version>
                    <langstring xml:lang="{language}">{self._escape_xml(options.package_version)}</langstring>
                </version>
                <contribute>
                    <role>
                        <source>LOMv1.0</source>
                        <value>Author</value>
                    </role>
                    <entity>{organization}</entity>
                    <date>
                        <dateTime>{self._escape_xml(options.package_date)}</dateTime>
                    </date>
                </contribute>
            </lifeCycle>
        </lom>
    </metadata>

    <organizations default="default_org">
        <organization identifier="default_org">
            <title>{organization}</title>
            <item identifier="item_1" identifierref="resource_1" isvisible="true">
                <title>{title}</title>
                <adlcp:masteryscore>{options.mastery_score}</adlcp:masteryscore>
            </item>
        </organization>
    </organizations>

    <resources>
        <resource identifier="resource_1" type="webcontent" adlcp:scormtype="sco" href="{starting_page}">{file_entries}
        </resource>
    </resources>

</manifest>
"""

    def _create_imsmanifest(self, package_dir: Path, options: PackageOptions) -> None:
        files = [
            name for name in self._list_files(package_dir)
            if name != MANIFEST_FILENAME
        ]
        manifest_path = package_dir / MANIFEST_FILENAME
        with open(manifest_path, "w", encoding="utf-8") as f:
            f.write(self.render_manifest(options, files))

    def _validate_package_structure(self, package_dir: Path) -> None:
        """
        Ensure the required player files exist and the manifest parses

        Raises:
            ValueError: If package structure is invalid
        """
        missing_files = [
            name for name in self.required_files
            if not (package_dir / name).is_file()
        ]
        if missing_files:
            raise ValueError(
                f"Package validation failed: Missing required files: "
                f"{', '.join(missing_files)}"
            )

        try:
            ElementTree.parse(package_dir / MANIFEST_FILENAME)
        except ElementTree.ParseError as e:
            raise ValueError(f"Manifest validation failed: {e}") from e

    @staticmethod
    def _list_files(root: Path) -> List[str]:
        """Relative POSIX paths of every file below ``root``, sorted"""
        return sorted(
            path.relative_to(root).as_posix()
            for path in root.rglob("*")
            if path.is_file()
        )

    def _zip_directory(self, source_dir: Path, zip_path: Path) -> None:
        with zipfile.ZipFile(zip_path, "w", zipfile.ZIP_DEFLATED) as zip_file:
            # imsmanifest.xml is always the first entry
            zip_file.write(source_dir / MANIFEST_FILENAME, MANIFEST_FILENAME)
            for name in self._list_files(source_dir):
                if name != MANIFEST_FILENAME:
                    zip_file.write(source_dir / name, name)

    @staticmethod
    def _reset_directory(directory: Path) -> None:
        if directory.exists():
            shutil.rmtree(directory)
        directory.mkdir(parents=True)

    @staticmethod
    def _discard(path: Path) -> None:
        try:
            if path.is_dir():
                shutil.rmtree(path)
            elif path.exists():
                path.unlink()
        except OSError as e:
            logger.warning("Could not remove %s: %s", path, e)

    @staticmethod
    def _escape_xml(text: str) -> str:
        """Escape special characters for XML"""
        if not text:
            return ""

        return (str(text)
                .replace("&", "&amp;")
                .replace("<", "&lt;")
                .replace(">", "&gt;")
                .replace("\"", "&quot;")
                .replace("'", "&#x27;"))
