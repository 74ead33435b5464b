"""Tests for the fluent URL builder."""

import pytest

from fluenthttp import Url


class TestPath:
    """Test path building."""

    def test_segments_get_single_slashes(self):
        """Test joining segments onto a base with and without a trailing slash."""
        assert str(Url("https://a.test/api/").append_path_segments("users", 42)) == (
            "https://a.test/api/users/42"
        )
        assert str(Url("https://a.test/api").append_path_segment("/x/y/")) == (
            "https://a.test/api/x/y"
        )

    def test_segment_encoding(self):
        """Test that reserved characters are encoded."""
        url = Url("https://a.test").append_path_segment("a b")

        assert url.path == "/a%20b"
        assert url.path_segments == ["a b"]
        assert Url("https://a.test").append_path_segment("a/b", full_encode=True).path == (
            "/a%2Fb"
        )

    def test_nested_iterables_and_none(self):
        """Test that lists are flattened and None is skipped."""
        url = Url("https://a.test").append_path_segments(["a", ["b"]], None, "c")

        assert url.path == "/a/b/c"

    def test_remove_path_segment_and_reset(self):
        """Test trimming the path."""
        url = Url("https://a.test/a/b?x=1#f")

        assert url.remove_path_segment().path == "/a"
        assert str(url.reset_to_root()) == "https://a.test"


class TestQuery:
    """Test query building."""

    def test_set_keeps_position(self):
        """Test that replacing a parameter keeps its place."""
        url = Url("https://a.test/?a=1&b=2").set_query_param("a", 3)

        assert url.query == "a=3&b=2"

    def test_none_removes(self):
        """Test that None removes a parameter."""
        url = Url("https://a.test/?a=1&b=2").set_query_params(a=None)

        assert url.query == "b=2"

    def test_lists_repeat_and_bools_are_lowercase(self):
        """Test multi-valued parameters and bool formatting."""
        url = Url("https://a.test").set_query_params({"t": ["x", "y"]}, on=True, off=False)

        assert url.query == "t=x&t=y&on=true&off=false"
        assert url.get_query_params("t") == ["x", "y"]
        assert url.get_query_param("on") == "true"
        assert url.get_query_param("missing") is None

    def test_append_keeps_existing(self):
        """Test appending a duplicate name."""
        url = Url("https://a.test/?a=1").append_query_param("a", 2)

        assert url.query == "a=1&a=2"

    def test_values_are_encoded(self):
        """Test encoding of reserved characters in values."""
        url = Url("https://a.test").set_query_param("q", "a b&c")

        assert url.query == "q=a%20b%26c"

    def test_remove(self):
        """Test removing one or all parameters."""
        url = Url("https://a.test/?a=1&b=2&c=3")

        assert url.remove_query_param("b").query == "a=1&c=3"
        assert url.remove_query_params().query == ""


class TestParts:
    """Test URL components."""

    def test_root_and_ports(self):
        """Test root, explicit and default ports."""
        url = Url("http://a.test:8080/x")

        assert url.root == "http://a.test:8080"
        assert url.effective_port == 8080
        assert Url("https://a.test").effective_port == 443
        assert Url("https://a.test").is_secure

    def test_relative(self):
        """Test relative URLs."""
        url = Url("users/1")

        assert url.is_relative
        assert url.root == ""
        assert str(url) == "users/1"

    def test_fragment(self):
        """Test setting and removing the fragment."""
        url = Url("https://a.test/x").set_fragment("#top")

        assert str(url) == "https://a.test/x#top"
        assert str(url.remove_fragment()) == "https://a.test/x"

    def test_clone_is_independent(self):
        """Test that clones do not share state."""
        url = Url("https://a.test/x")
        copy = url.clone().set_query_param("a", 1)

        assert str(url) == "https://a.test/x"
        assert url != copy
        assert copy == "https://a.test/x?a=1"


class TestStaticHelpers:
    """Test combine, encode and decode."""

    @pytest.mark.parametrize(
        "parts,expected",
        [
            (("https://a.test/", "/x"), "https://a.test/x"),
            (("https://a.test", "x", "y/"), "https://a.test/x/y/"),
            (("https://a.test/x", "?q=1"), "https://a.test/x?q=1"),
            (("https://a.test/x", "", "#f"), "https://a.test/x#f"),
        ],
    )
    def test_combine(self, parts, expected):
        """Test joining with exactly one slash."""
        assert Url.combine(*parts) == expected

    def test_encode_and_decode(self):
        """Test percent encoding with optional plus for spaces."""
        assert Url.encode("a b/c") == "a%20b%2Fc"
        assert Url.encode("a b", encode_space_as_plus=True) == "a+b"
        assert Url.decode("a%20b+c") == "a b+c"
        assert Url.decode("a+b", interpret_plus_as_space=True) == "a b"
