"""Unit tests for the Swift adapter (Package.swift and Xcode projects)."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from conftest import write_text
from guidescout.lib.languages.base import GuidesNotFoundError
from guidescout.lib.languages.models import UNKNOWN
from guidescout.lib.languages.swift import (
    XCODE_RESOLVED,
    SwiftLanguageAdapter,
    parse_package_manifest,
    parse_resolved,
    repository_name,
    xcode_requirement,
)

MANIFEST = """\
// swift-tools-version:5.9
import PackageDescription

let package = Package(
    name: "MyLib",
    dependencies: [
        .package(url: "https://github.com/apple/swift-nio.git", from: "2.60.0"),
        .package(url: "https://github.com/apple/swift-log", .upToNextMinor(from: "1.5.0")),
        .package(url: "git@github.com:pointfreeco/swift-case-paths.git", exact: "1.1.0"),
        .package(url: "https://github.com/acme/range.git", "1.0.0"..<"2.0.0"),
        .package(path: "../LocalUtils"),
    ],
    targets: [
        .target(name: "MyLib", dependencies: [.product(name: "NIO", package: "swift-nio")]),
    ]
)
"""

RESOLVED_V1 = {
    "object": {
        "pins": [
            {
                "package": "swift-nio",
                "repositoryURL": "https://github.com/apple/swift-nio.git",
                "state": {"branch": None, "revision": "abc123", "version": "2.62.0"},
            }
        ]
    },
    "version": 1,
}

RESOLVED_V2 = {
    "pins": [
        {
            "identity": "alamofire",
            "kind": "remoteSourceControl",
            "location": "https://github.com/Alamofire/Alamofire.git",
            "state": {"revision": "def456", "version": "5.8.1"},
        },
        {
            "identity": "edge",
            "kind": "remoteSourceControl",
            "location": "https://github.com/acme/edge",
            "state": {"branch": "main", "revision": "0123456789abcdef"},
        },
    ],
    "version": 2,
}

PBXPROJ = """\
// !$*UTF8*$!
{
	archiveVersion = 1;
	objects = {
		T1 /* MyApp */ = {
			isa = PBXNativeTarget;
			name = MyApp;
			packageProductDependencies = (
				P1 /* Alamofire */,
				P2 /* LocalKit */,
				P3 /* FirebaseAuth */,
			);
		};
		T2 /* MyAppTests */ = {
			isa = PBXNativeTarget;
			name = MyAppTests;
			packageProductDependencies = (
				P4 /* FirebaseFirestore */,
			);
		};
		P1 = { isa = XCSwiftPackageProductDependency; package = R1; productName = Alamofire; };
		P2 = { isa = XCSwiftPackageProductDependency; productName = LocalKit; };
		P3 = { isa = XCSwiftPackageProductDependency; package = R2; productName = FirebaseAuth; };
		P4 = { isa = XCSwiftPackageProductDependency; package = R2; productName = FirebaseFirestore; };
		R1 = {
			isa = XCRemoteSwiftPackageReference;
			repositoryURL = "https://github.com/Alamofire/Alamofire.git";
			requirement = { kind = upToNextMajorVersion; minimumVersion = 5.8.0; };
		};
		R2 = {
			isa = XCRemoteSwiftPackageReference;
			repositoryURL = "https://github.com/firebase/firebase-ios-sdk";
			requirement = { kind = exactVersion; version = 10.0.0; };
		};
		L1 = { isa = XCLocalSwiftPackageReference; relativePath = "../LocalKit"; };
	};
	rootObject = ROOT;
}
"""


def _find_project(derived_data: Path, project: str) -> tuple[str, ...]:
    return ("find", str(derived_data), "-maxdepth", "1", "-type", "d", "-name", f"{project}-*")


def _find_checkout(checkouts: Path, name: str) -> tuple[str, ...]:
    return ("find", str(checkouts), "-maxdepth", "1", "-type", "d", "-iname", name)


@pytest.fixture
def adapter(config, runner) -> SwiftLanguageAdapter:
    return SwiftLanguageAdapter(config=config, runner=runner)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


class TestRepositoryName:
    @pytest.mark.parametrize(
        "url,name",
        [
            ("https://github.com/apple/swift-nio.git", "swift-nio"),
            ("https://github.com/apple/swift-log/", "swift-log"),
            ("git@github.com:pointfreeco/swift-case-paths.git", "swift-case-paths"),
            ("git@example.com:solo.git", "solo"),
        ],
    )
    def test_names(self, url, name):
        assert repository_name(url) == name


class TestManifest:
    def test_dependencies(self):
        name, deps = parse_package_manifest(MANIFEST)
        assert name == "MyLib"
        assert [(d.name, d.requirement) for d in deps] == [
            ("swift-nio", "from 2.60.0"),
            ("swift-log", "upToNextMinor 1.5.0"),
            ("swift-case-paths", "exact 1.1.0"),
            ("range", "1.0.0..<2.0.0"),
            ("LocalUtils", UNKNOWN),
        ]
        assert deps[-1].path == "../LocalUtils"
        assert deps[0].url == "https://github.com/apple/swift-nio.git"

    def test_branch_and_revision(self):
        _, deps = parse_package_manifest(
            '.package(url: "https://x/a.git", branch: "main")\n'
            '.package(url: "https://x/b.git", revision: "abc")\n'
        )
        assert [d.requirement for d in deps] == ["branch main", "revision abc"]

    def test_no_name(self):
        assert parse_package_manifest("// empty") == (None, [])


class TestResolved:
    def test_v1(self):
        assert parse_resolved(json.dumps(RESOLVED_V1)) == {"swift-nio": "2.62.0"}

    def test_v2(self):
        assert parse_resolved(json.dumps(RESOLVED_V2)) == {
            "alamofire": "5.8.1",
            "edge": "main",
        }


class TestXcodeRequirement:
    @pytest.mark.parametrize(
        "requirement,expected",
        [
            ({"kind": "upToNextMajorVersion", "minimumVersion": "5.8.0"}, "from 5.8.0"),
            ({"kind": "upToNextMinorVersion", "minimumVersion": "1.2.0"}, "upToNextMinor 1.2.0"),
            ({"kind": "exactVersion", "version": "10.0.0"}, "exact 10.0.0"),
            ({"kind": "versionRange", "minimumVersion": "1.0.0", "maximumVersion": "2.0.0"}, "1.0.0..<2.0.0"),
            ({"kind": "branch", "branch": "develop"}, "branch develop"),
            ({"kind": "revision", "revision": "abc"}, "revision abc"),
            ({"kind": "somethingNew"}, UNKNOWN),
            (None, UNKNOWN),
        ],
    )
    def test_render(self, requirement, expected):
        assert xcode_requirement(requirement) == expected


# ---------------------------------------------------------------------------
# Package.swift projects
# ---------------------------------------------------------------------------


@pytest.fixture
def spm_project(tmp_path: Path) -> Path:
    root = tmp_path / "lib"
    write_text(root / "Package.swift", MANIFEST)
    write_text(root / "Package.resolved", json.dumps(RESOLVED_V1))
    checkouts = root / ".build" / "checkouts"
    (checkouts / "swift-nio" / ".guides").mkdir(parents=True)
    (checkouts / "Swift-Log").mkdir(parents=True)
    (tmp_path / "LocalUtils" / ".guides").mkdir(parents=True)
    return root


class TestSwiftPM:
    @pytest.mark.asyncio
    async def test_not_detected(self, adapter, tmp_path):
        context = await adapter.discover(tmp_path)
        assert not context.detected
        assert context.packages == []

    @pytest.mark.asyncio
    async def test_discover(self, adapter, runner, spm_project):
        context = await adapter.discover(spm_project)

        assert context.detected
        assert context.package_manager == "swiftpm"
        assert context.runtime == "swift"
        assert context.workspace_package.name == "MyLib"
        assert runner.calls == []

        nio = context.find("swift-nio")
        assert nio.guides is True
        assert nio.package_version == "2.62.0"
        assert nio.dependency_version == "from 2.60.0"
        assert nio.dir == str(spm_project / ".build" / "checkouts" / "swift-nio")

        log = context.find("swift-log")
        assert Path(log.dir).name.lower() == "swift-log"
        assert log.guides is False
        assert log.package_version == UNKNOWN

        paths = context.find("swift-case-paths")
        assert paths.dir == UNKNOWN
        assert paths.guides is False

        local = context.find("LocalUtils")
        assert local.guides is True
        assert local.dir == str((spm_project.parent / "LocalUtils").resolve())

    @pytest.mark.asyncio
    async def test_resolve(self, adapter, spm_project):
        await adapter.discover(spm_project)
        guides = await adapter.resolve_guides_dir(spm_project, "swift-nio")
        assert guides == spm_project / ".build" / "checkouts" / "swift-nio" / ".guides"

    @pytest.mark.asyncio
    async def test_resolve_without_discover(self, adapter, spm_project):
        guides = await adapter.resolve_guides_dir(spm_project, "LocalUtils")
        assert guides == (spm_project.parent / "LocalUtils" / ".guides").resolve()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", ["swift-case-paths", "swift-log", "not-a-dependency"])
    async def test_resolve_failures(self, adapter, spm_project, name):
        with pytest.raises(GuidesNotFoundError, match=name):
            await adapter.resolve_guides_dir(spm_project, name)

    @pytest.mark.asyncio
    async def test_corrupt_resolved_file(self, adapter, spm_project):
        write_text(spm_project / "Package.resolved", "{ nope")
        context = await adapter.discover(spm_project)
        assert context.find("swift-nio").package_version == UNKNOWN
        assert context.find("swift-nio").guides is True

    @pytest.mark.asyncio
    async def test_roots_resolve_independently(self, adapter, tmp_path):
        manifest = (
            'let package = Package(name: "App", dependencies: [\n'
            '    .package(url: "https://x/dep.git", from: "1.0.0"),\n'
            "])\n"
        )
        for root_name in ("a", "b"):
            write_text(tmp_path / root_name / "Package.swift", manifest)
            (tmp_path / root_name / ".build" / "checkouts" / "dep" / ".guides").mkdir(parents=True)

        await adapter.discover(tmp_path / "a")
        await adapter.discover(tmp_path / "b")

        for root_name in ("a", "b"):
            guides = await adapter.resolve_guides_dir(tmp_path / root_name, "dep")
            assert guides == tmp_path / root_name / ".build" / "checkouts" / "dep" / ".guides"


# ---------------------------------------------------------------------------
# Xcode projects
# ---------------------------------------------------------------------------


@pytest.fixture
def xcode_project(tmp_path: Path) -> Path:
    root = tmp_path / "ios"
    xcodeproj = root / "MyApp.xcodeproj"
    write_text(xcodeproj / "project.pbxproj", PBXPROJ)
    write_text(xcodeproj / XCODE_RESOLVED, json.dumps(RESOLVED_V2))
    (tmp_path / "LocalKit" / ".guides").mkdir(parents=True)
    return root


@pytest.fixture
def checkouts(config) -> Path:
    checkouts = Path(config.derived_data_dir) / "MyApp-abcdef" / "SourcePackages" / "checkouts"
    (checkouts / "Alamofire" / ".guides").mkdir(parents=True)
    return checkouts


class TestXcode:
    @pytest.mark.asyncio
    async def test_discover(self, adapter, runner, config, xcode_project, checkouts):
        runner.add(
            _find_project(config.derived_data_dir, "MyApp"),
            stdout=f"{checkouts.parent.parent}\n",
        )
        runner.add(_find_checkout(checkouts, "Alamofire"), stdout=f"{checkouts / 'Alamofire'}\n")
        runner.add(_find_checkout(checkouts, "firebase-ios-sdk"), stdout="")

        context = await adapter.discover(xcode_project)

        assert context.detected
        assert context.package_manager == "xcode"
        assert context.workspace_package.name == "MyApp"
        assert [p.name for p in context.packages] == ["Alamofire", "LocalKit", "firebase-ios-sdk"]

        alamofire = context.find("Alamofire")
        assert alamofire.guides is True
        assert alamofire.dir == str(checkouts / "Alamofire")
        assert alamofire.package_version == "5.8.1"
        assert alamofire.dependency_version == "from 5.8.0"

        local = context.find("LocalKit")
        assert local.guides is True
        assert local.dir == str((xcode_project.parent / "LocalKit").resolve())

        firebase = context.find("firebase-ios-sdk")
        assert firebase.dir == UNKNOWN
        assert firebase.guides is False
        assert firebase.dependency_version == "exact 10.0.0"

    @pytest.mark.asyncio
    async def test_derived_data_searched_once(self, adapter, runner, config, xcode_project, checkouts):
        runner.add(
            _find_project(config.derived_data_dir, "MyApp"),
            stdout=f"{checkouts.parent.parent}\n",
        )
        await adapter.discover(xcode_project)
        project_searches = [c for c in runner.commands() if "-name" in c]
        assert len(project_searches) == 1

    @pytest.mark.asyncio
    async def test_no_derived_data(self, adapter, runner, xcode_project):
        context = await adapter.discover(xcode_project)
        assert runner.calls == []
        assert context.find("Alamofire").dir == UNKNOWN
        assert context.find("LocalKit").guides is True

    @pytest.mark.asyncio
    async def test_no_find_tool(self, adapter, runner, config, xcode_project, checkouts):
        # FakeCommandRunner treats unscripted commands as a missing executable.
        context = await adapter.discover(xcode_project)
        assert len(runner.calls) == 1
        assert context.find("Alamofire").dir == UNKNOWN

    @pytest.mark.asyncio
    async def test_resolve(self, adapter, runner, config, xcode_project, checkouts):
        runner.add(
            _find_project(config.derived_data_dir, "MyApp"),
            stdout=f"{checkouts.parent.parent}\n",
        )
        runner.add(_find_checkout(checkouts, "Alamofire"), stdout=f"{checkouts / 'Alamofire'}\n")

        guides = await adapter.resolve_guides_dir(xcode_project, "Alamofire")

        assert guides == checkouts / "Alamofire" / ".guides"

    @pytest.mark.asyncio
    async def test_unparseable_project(self, adapter, tmp_path):
        write_text(tmp_path / "Broken.xcodeproj" / "project.pbxproj", "{ objects = ")
        context = await adapter.discover(tmp_path)
        assert context.detected
        assert context.workspace_package.name == "Broken"
        assert context.packages == []

    @pytest.mark.asyncio
    async def test_non_dictionary_objects(self, adapter, tmp_path):
        write_text(tmp_path / "Odd.xcodeproj" / "project.pbxproj", "{ objects = abc; }")
        context = await adapter.discover(tmp_path)
        assert context.detected
        assert context.packages == []

    @pytest.mark.asyncio
    async def test_malformed_product_references_are_skipped(self, adapter, runner, tmp_path):
        pbxproj = """\
{
	objects = {
		T1 = { isa = PBXNativeTarget; packageProductDependencies = ( { a = b; }, P1 ); };
		T2 = { isa = PBXNativeTarget; packageProductDependencies = P1; };
		P1 = { isa = XCSwiftPackageProductDependency; package = ( R1 ); productName = Alamofire; };
		P2 = { isa = XCSwiftPackageProductDependency; productName = ( x ); };
		T3 = { isa = PBXNativeTarget; packageProductDependencies = ( P2 ); };
	};
}
"""
        write_text(tmp_path / "Odd.xcodeproj" / "project.pbxproj", pbxproj)

        context = await adapter.discover(tmp_path)

        assert [p.name for p in context.packages] == ["Alamofire"]
        assert context.packages[0].dependency_version == UNKNOWN
        assert context.packages[0].dir == UNKNOWN

    @pytest.mark.asyncio
    async def test_manifest_takes_precedence(self, adapter, spm_project):
        write_text(spm_project / "MyApp.xcodeproj" / "project.pbxproj", "{ objects = { }; }")
        context = await adapter.discover(spm_project)
        assert context.package_manager == "swiftpm"
        assert context.workspace_package.name == "MyLib"

    @pytest.mark.asyncio
    async def test_no_contrib_registry(self, adapter):
        assert await adapter.discover_contrib(["Alamofire"]) == []
