from content.file_tree import build_file_tree
from remote.base import TreeItem


def test_nested_tree_dirs_first():
    items = [
        TreeItem("README.md", "blob", 3),
        TreeItem("src", "tree"),
        TreeItem("src/b.md", "blob", 1),
        TreeItem("src/A.md", "blob", 1),
        TreeItem("src/content", "tree"),
        TreeItem("src/content/post.md", "blob", 1),
    ]

    tree = build_file_tree(items)

    assert [n["name"] for n in tree] == ["src", "README.md"]
    src = tree[0]
    assert src["type"] == "dir"
    assert [n["name"] for n in src["children"]] == ["content", "A.md", "b.md"]
    assert src["children"][0]["children"][0]["path"] == "src/content/post.md"


def test_missing_directory_entries_are_implied():
    tree = build_file_tree([TreeItem("a/b/c.txt", "blob")])

    assert tree[0]["path"] == "a"
    assert tree[0]["children"][0]["children"][0]["type"] == "file"
