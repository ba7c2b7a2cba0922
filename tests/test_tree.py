"""Tests for remote tree snapshots."""

import pytest

from pymirror.exceptions import MirrorConfigError, ServerPathNotFoundError
from pymirror.models import NodeKind, RemoteNode
from pymirror.tree import ParentIndexedTree, PathIndexedTree, RemoteTree, normalize_path


def d(name, node_id=None, parent_id=None, path=None):
    return RemoteNode(
        name=name, kind=NodeKind.DIRECTORY, node_id=node_id, parent_id=parent_id, path=path
    )


def f(name, node_id=None, parent_id=None, path=None, size=1):
    return RemoteNode(
        name=name, kind=NodeKind.FILE, size=size, node_id=node_id, parent_id=parent_id, path=path
    )


@pytest.fixture
def parent_tree():
    return ParentIndexedTree(
        [
            d("", "0"),
            d("Mods", "1", "0"),
            f("updates.json", "2", "0"),
            d("Sideloader", "3", "1"),
            f("a.zip", "4", "3"),
            f("mods", "5", "0"),
        ],
        origin="drive",
    )


@pytest.fixture
def path_tree():
    return PathIndexedTree(
        [
            d("Mods", path="/pub/Mods"),
            f("updates.json", path="/pub/updates.json"),
            d("Sideloader", path="/pub/Mods/Sideloader"),
            f("a.zip", path="/pub/Mods/Sideloader/a.zip"),
        ],
        root_path="/pub",
        origin="ftp",
    )


class TestRemoteTree:
    """Tests for the RemoteTree base class."""

    def test_cannot_be_instantiated(self):
        with pytest.raises(TypeError):
            RemoteTree(d(""))

    def test_subclass_must_implement_children(self):
        class NodesOnly(RemoteTree):
            @property
            def nodes(self):
                return [self.root]

        with pytest.raises(TypeError):
            NodesOnly(d(""))


class TestParentIndexedTree:
    """Tests for ParentIndexedTree."""

    def test_children(self, parent_tree):
        names = [n.name for n in parent_tree.children(parent_tree.root)]
        assert names == ["Mods", "updates.json", "mods"]

    def test_resolve_case_insensitive(self, parent_tree):
        node = parent_tree.resolve_directory("/MODS/sideloader/")
        assert node.node_id == "3"

    def test_resolve_skips_files_with_same_name(self, parent_tree):
        assert parent_tree.resolve_directory("mods").node_id == "1"

    @pytest.mark.parametrize("path", ["", "/", "//"])
    def test_resolve_root(self, parent_tree, path):
        assert parent_tree.resolve_directory(path) is parent_tree.root

    def test_resolve_backslashes(self, parent_tree):
        assert parent_tree.resolve_directory("Mods\\Sideloader").name == "Sideloader"

    def test_resolve_missing(self, parent_tree):
        with pytest.raises(ServerPathNotFoundError, match="Other"):
            parent_tree.resolve_directory("/Mods/Other")

    def test_find_file_is_exact(self, parent_tree):
        assert parent_tree.find_file("updates.json").node_id == "2"
        assert parent_tree.find_file("UPDATES.json") is None

    def test_len(self, parent_tree):
        assert len(parent_tree) == 6

    def test_requires_single_root(self):
        with pytest.raises(MirrorConfigError):
            ParentIndexedTree([d("", "0"), d("other", "1")])

    def test_requires_directory_root(self):
        with pytest.raises(MirrorConfigError):
            ParentIndexedTree([f("file", "0")])


class TestPathIndexedTree:
    """Tests for PathIndexedTree."""

    def test_synthesizes_root(self, path_tree):
        assert path_tree.root.name == "pub"
        assert path_tree.root.is_directory
        assert len(path_tree) == 5

    def test_children(self, path_tree):
        names = [n.name for n in path_tree.children(path_tree.root)]
        assert names == ["Mods", "updates.json"]

    def test_resolve_case_insensitive(self, path_tree):
        node = path_tree.resolve_directory("mods/SIDELOADER")
        assert [n.name for n in path_tree.children(node)] == ["a.zip"]

    def test_resolve_missing(self, path_tree):
        with pytest.raises(ServerPathNotFoundError):
            path_tree.resolve_directory("nothing")

    def test_default_root(self):
        tree = PathIndexedTree([f("a", path="/a"), d("b", path="/b")])
        assert tree.root.name == ""
        assert [n.name for n in tree.children(tree.root)] == ["a", "b"]

    def test_node_without_path(self):
        with pytest.raises(MirrorConfigError):
            PathIndexedTree([f("a")])


class TestNormalizePath:
    """Tests for normalize_path."""

    @pytest.mark.parametrize(
        "path,expected",
        [("/", "/"), ("", "/"), ("/A/b/", "/a/b"), ("a\\B", "/a/b"), ("//x//y", "/x/y")],
    )
    def test_normalize(self, path, expected):
        assert normalize_path(path) == expected
