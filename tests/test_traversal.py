from pathlib import Path

import pytest

from remotefind.actions import ActionExecutor
from remotefind.criteria import compile_criteria
from remotefind.local import LocalConnector
from remotefind.rename import compile_rename
from remotefind.traversal import Finder


def collect(connector, root, tokens=(), **options):
    seen = []
    finder = Finder(connector, compile_criteria(tokens), seen.append, **options)
    finder.find(root)
    return seen


def paths(entries):
    return [entry.path for entry in entries]


@pytest.fixture
def tree(memory):
    memory.add_dir('/root')
    memory.add_dir('/root/a')
    memory.add_file('/root/a/one', size=1)
    memory.add_dir('/root/a/deep')
    memory.add_file('/root/a/deep/two', size=2)
    memory.add_file('/root/b', size=3)
    memory.add_dir('/root/d')
    return memory


def test_deferred_descent_order(tree):
    assert paths(collect(tree, '/root')) == [
        '/root/a', '/root/b', '/root/d', '/root/a/one', '/root/a/deep', '/root/a/deep/two',
    ]


def test_immediate_descent_order(tree):
    assert paths(collect(tree, '/root', depth_first=True)) == [
        '/root/a/one', '/root/a/deep/two', '/root/a/deep', '/root/a', '/root/b', '/root/d',
    ]


def test_depth_is_counted_from_root_children(tree):
    depths = {entry.path: entry.depth for entry in collect(tree, '/root')}
    assert depths['/root/a'] == 1
    assert depths['/root/a/one'] == 2
    assert depths['/root/a/deep/two'] == 3


def test_max_depth_stops_descent_but_filters_directory(tree):
    assert paths(collect(tree, '/root', max_depth=1)) == ['/root/a', '/root/b', '/root/d']
    assert paths(collect(tree, '/root', max_depth=2, depth_first=True)) == [
        '/root/a/one', '/root/a/deep', '/root/a', '/root/b', '/root/d',
    ]


def test_sort_by_name(memory):
    memory.add_dir('/r')
    for name in ('c', 'a', 'b'):
        memory.add_file(f'/r/{name}')
    assert paths(collect(memory, '/r')) == ['/r/c', '/r/a', '/r/b']
    assert paths(collect(memory, '/r', sort=True)) == ['/r/a', '/r/b', '/r/c']


def test_empty_directory_unknown_in_deferred_mode(tree):
    tokens = [('type', 'd'), ('empty', None)]
    assert paths(collect(tree, '/root', tokens)) == []
    entries = collect(tree, '/root', [('type', 'd')])
    assert all(entry.is_empty_dir is None for entry in entries)


def test_empty_directory_known_in_immediate_mode(tree):
    tokens = [('type', 'd'), ('empty', None)]
    assert paths(collect(tree, '/root', tokens, depth_first=True)) == ['/root/d']
    flags = {entry.path: entry.is_empty_dir for entry in collect(tree, '/root', [('type', 'd')], depth_first=True)}
    assert flags == {'/root/a/deep': False, '/root/a': False, '/root/d': True}


def test_find_reports_root_emptiness(memory):
    memory.add_dir('/empty')
    assert Finder(memory, (), lambda entry: None).find('/empty') is True
    memory.add_file('/empty/f')
    assert Finder(memory, (), lambda entry: None).find('/empty') is False


def test_listing_failure_skips_subtree(tree, caplog):
    tree.failing.add('/root/a')
    assert paths(collect(tree, '/root')) == ['/root/a', '/root/b', '/root/d']
    assert "cannot list directory '/root/a'" in caplog.text


def test_listing_failure_is_not_empty(tree):
    tree.failing.add('/root/d')
    entries = collect(tree, '/root', [('name', '^d$')], depth_first=True)
    assert [entry.is_empty_dir for entry in entries] == [False]


def test_root_listing_failure_raises(memory):
    with pytest.raises(FileNotFoundError):
        collect(memory, '/missing')


def test_links_are_not_followed(memory):
    memory.add_dir('/r')
    memory.add_dir('/r/real')
    memory.add_file('/r/real/f')
    memory.add_link('/r/link', '/r/real')
    assert paths(collect(memory, '/r')) == ['/r/real', '/r/link', '/r/real/f']


def test_filter_applies_to_every_level(tree):
    assert paths(collect(tree, '/root', [('type', 'f')])) == ['/root/b', '/root/a/one', '/root/a/deep/two']


def test_root_path_kept_as_given(memory):
    memory.add_dir('/r')
    memory.add_dir('/r/sub')
    memory.add_file('/r/sub/f')
    assert paths(collect(memory, '/r/', [('type', 'f')])) == ['/r/sub/f']
    assert [entry.parent for entry in collect(memory, '/r/')] == ['/r/', '/r/sub']


def test_local_connector(tmp_path: Path):
    (tmp_path / 'dir').mkdir()
    (tmp_path / 'dir' / 'file.txt').write_bytes(b'hello')
    (tmp_path / 'empty').mkdir()
    (tmp_path / 'zero').write_bytes(b'')

    connector = LocalConnector()
    found = {entry.path: entry for entry in collect(connector, str(tmp_path), depth_first=True)}
    assert set(found) == {
        f'{tmp_path}/dir', f'{tmp_path}/dir/file.txt', f'{tmp_path}/empty', f'{tmp_path}/zero',
    }
    assert found[f'{tmp_path}/dir/file.txt'].size == 5
    assert found[f'{tmp_path}/empty'].is_empty_dir is True
    assert found[f'{tmp_path}/dir'].is_empty_dir is False

    empty = collect(connector, str(tmp_path), [('empty', None)], depth_first=True)
    assert sorted(paths(empty)) == [f'{tmp_path}/empty', f'{tmp_path}/zero']


def test_renamed_directory_is_descended_under_new_name(memory, caplog):
    memory.add_dir('/r')
    memory.add_dir('/r/sub')
    memory.add_file('/r/sub/child')
    seen = []
    executor = ActionExecutor(memory, rename=compile_rename('upper'))

    def action(entry):
        seen.append(entry.path)
        return executor(entry)

    Finder(memory, (), action).find('/r')
    assert seen == ['/r/sub', '/r/SUB/child']
    assert set(memory.nodes) == {'/r', '/r/SUB', '/r/SUB/CHILD'}
    assert 'cannot list directory' not in caplog.text
