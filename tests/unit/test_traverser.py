"""
Tests for recursive directory traversal
"""
import io
import os
import sys

import pytest

from dirinspect.core.errors import ErrorKind
from dirinspect.traversal.path_list import PathList
from dirinspect.traversal.traverser import DirectoryTraverser


class FailingSink(io.StringIO):
    def write(self, text):
        raise OSError(28, "No space left on device")


class TestDirectoryTraverser:
    """Test traversal output and error containment"""

    def setup_method(self):
        self.lines = []

    def announce(self, text):
        self.lines.append(text)
        return True

    def test_counts_every_regular_file(self, file_tree):
        """Test counting every regular file in the tree"""
        result = DirectoryTraverser(self.announce).traverse(str(file_tree))

        expected = {
            os.path.join(str(file_tree), 'top.txt'),
            os.path.join(str(file_tree), 'notes.md'),
            os.path.join(str(file_tree), 'sub', 'deep.txt'),
            os.path.join(str(file_tree), 'sub', 'deeper', 'data.bin'),
        }
        assert result.file_count == 4
        assert set(result.files) == expected
        assert result.errors == []

    def test_announces_directories_and_files(self, file_tree):
        """Test directory and file announcements"""
        DirectoryTraverser(self.announce).traverse(str(file_tree))

        assert self.lines[0] == f"Directory: {file_tree}\n"
        directories = [line for line in self.lines if line.startswith("Directory: ")]
        files = [line for line in self.lines if line.startswith("File: ")]
        assert len(directories) == 3
        assert f"Directory: {os.path.join(str(file_tree), 'sub', 'deeper')}\n" in directories
        assert len(files) == 4

    def test_directory_announced_before_its_files(self, file_tree):
        """Test announcement order"""
        DirectoryTraverser(self.announce).traverse(str(file_tree))

        deeper = os.path.join(str(file_tree), 'sub', 'deeper')
        data = os.path.join(deeper, 'data.bin')
        assert self.lines.index(f"Directory: {deeper}\n") < self.lines.index(f"File: {data}\n")

    def test_writes_paths_to_sink(self, file_tree):
        """Test that discovered paths are written to the sink"""
        sink = io.StringIO()
        result = DirectoryTraverser(self.announce, sink).traverse(str(file_tree))

        assert sink.getvalue().splitlines() == result.files

    def test_empty_directory(self, tmp_path):
        """Test traversing an empty directory"""
        result = DirectoryTraverser(self.announce).traverse(str(tmp_path))

        assert result.file_count == 0
        assert self.lines == [f"Directory: {tmp_path}\n"]

    def test_unopenable_directory(self, tmp_path):
        """Test a root that cannot be opened"""
        missing = str(tmp_path / 'missing')

        result = DirectoryTraverser(self.announce).traverse(missing)

        assert result.file_count == 0
        assert self.lines == [f"ERROR: Cannot open directory: {missing}\n"]
        assert result.errors[0].kind is ErrorKind.OPEN_FAILED

    def test_regular_file_as_root(self, file_tree):
        """Test a regular file given as root"""
        root = str(file_tree / 'top.txt')
        result = DirectoryTraverser(self.announce).traverse(root)

        assert result.file_count == 0
        assert self.lines == [f"ERROR: Cannot open directory: {root}\n"]

    def test_unstatable_entry_is_skipped(self, tmp_path):
        """Test that a dangling symlink is skipped"""
        (tmp_path / 'real.txt').write_text("x")
        os.symlink(str(tmp_path / 'nowhere'), str(tmp_path / 'dangling'))

        result = DirectoryTraverser(self.announce).traverse(str(tmp_path))

        assert result.files == [os.path.join(str(tmp_path), 'real.txt')]
        assert result.errors == []

    def test_symlinked_file_is_followed(self, tmp_path):
        """Test that symlinks to files are followed"""
        (tmp_path / 'real.txt').write_text("x")
        os.symlink(str(tmp_path / 'real.txt'), str(tmp_path / 'alias.txt'))

        result = DirectoryTraverser(self.announce).traverse(str(tmp_path))

        assert result.file_count == 2

    def test_sink_failure_abandons_directory(self, tmp_path):
        """Test that a sink write failure abandons the directory"""
        (tmp_path / 'a.txt').write_text("a")
        (tmp_path / 'b.txt').write_text("b")

        result = DirectoryTraverser(self.announce, FailingSink()).traverse(str(tmp_path))

        assert len(result.errors) == 1
        assert result.errors[0].kind is ErrorKind.WRITE_FAILED
        assert result.file_count == 1
        assert self.lines[-1].startswith("ERROR: Failed writing to output file")

    def test_send_failure_stops_directory(self, file_tree):
        """Test a peer that can no longer receive"""
        result = DirectoryTraverser(lambda text: False).traverse(str(file_tree))

        assert result.file_count == 0
        assert result.errors[0].kind is ErrorKind.SEND_FAILED

    def test_repeated_traversal_is_stable(self, file_tree):
        """Test traversing the same tree twice"""
        traverser = DirectoryTraverser(self.announce)
        first = traverser.traverse(str(file_tree))
        second = traverser.traverse(str(file_tree))

        assert first.file_count == second.file_count == 4

    def test_tree_deeper_than_recursion_limit(self, deep_tree):
        """A tree deeper than the recursion limit is walked to the bottom"""
        root, leaf, levels = deep_tree
        assert levels > sys.getrecursionlimit()

        result = DirectoryTraverser(self.announce).traverse(str(root))

        assert result.files == [str(leaf)]
        assert result.errors == []
        assert len([line for line in self.lines if line.startswith("Directory: ")]) == levels + 1

    def test_subdirectory_listed_inline(self, tmp_path):
        """Entries of a subdirectory are announced before the parent's later entries"""
        (tmp_path / 'only').mkdir()
        (tmp_path / 'only' / 'inner.txt').write_text("x")

        DirectoryTraverser(self.announce).traverse(str(tmp_path))

        assert self.lines == [
            f"Directory: {tmp_path}\n",
            f"Directory: {tmp_path / 'only'}\n",
            f"File: {tmp_path / 'only' / 'inner.txt'}\n",
        ]

    def test_sink_failure_keeps_sibling_directories(self, tmp_path):
        """A write failure abandons the failing directory only"""
        (tmp_path / 'left').mkdir()
        (tmp_path / 'left' / 'one.txt').write_text("1")
        (tmp_path / 'right').mkdir()
        (tmp_path / 'right' / 'two.txt').write_text("2")

        result = DirectoryTraverser(self.announce, FailingSink()).traverse(str(tmp_path))

        assert result.file_count == 2
        assert len(result.errors) == 2


class TestPathList:
    """Test the per-session path list file"""

    def test_lists_are_distinct(self, tmp_path):
        """Test that each path list gets its own file"""
        first = PathList(str(tmp_path))
        second = PathList(str(tmp_path))
        assert first.path != second.path

    def test_write_truncates(self, tmp_path):
        """Test that opening for write truncates the list"""
        path_list = PathList(str(tmp_path))
        with path_list.open_for_write() as f:
            f.write("/one\n/two\n")
        with path_list.open_for_write() as f:
            f.write("/three\n")

        with path_list.read() as f:
            assert f.read() == "/three\n"

    def test_carriage_return_stays_in_path(self, tmp_path):
        """Only a line feed ends an entry"""
        path_list = PathList(str(tmp_path))
        with path_list.open_for_write() as f:
            f.write("/dir/a\rb.txt\n/dir/plain.txt\n")

        with path_list.read() as f:
            assert [line.rstrip("\n") for line in f] == ["/dir/a\rb.txt", "/dir/plain.txt"]

    def test_cleanup(self, tmp_path):
        """Test removing the path list file"""
        path_list = PathList(str(tmp_path))
        path_list.cleanup()
        assert not os.path.exists(path_list.path)
        path_list.cleanup()


if __name__ == '__main__':
    pytest.main([__file__])
