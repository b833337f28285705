from urllib.parse import parse_qs, urlsplit

import pytest

from hls_proxy.proxy.url_resolver import absolutize, base_directory, to_proxy_url

BASE = "http://origin/path/live.m3u8"
PROXY_BASE = "http://testserver/proxy"


def decoded_target(proxied_url: str) -> str:
    return parse_qs(urlsplit(proxied_url).query)["url"][0]


class TestAbsolutize:
    @pytest.mark.parametrize(
        "reference",
        [
            "http://cdn.example.com/a/seg1.ts",
            "https://cdn.example.com/a/seg1.ts?token=x",
            "HTTPS://CDN.example.com/key.bin",
        ],
    )
    def test_absolute_reference_unchanged(self, reference):
        assert absolutize(reference, BASE) == reference

    def test_path_relative(self):
        assert absolutize("segment1.ts", BASE) == "http://origin/path/segment1.ts"

    def test_path_relative_subdirectory(self):
        assert (
            absolutize("720p/index.m3u8", BASE) == "http://origin/path/720p/index.m3u8"
        )

    def test_root_relative_keeps_port(self):
        assert (
            absolutize("/hls/seg.ts", "https://origin:8443/path/live.m3u8")
            == "https://origin:8443/hls/seg.ts"
        )

    def test_root_relative_drops_base_path(self):
        assert absolutize("/seg.ts", BASE) == "http://origin/seg.ts"

    def test_dot_segments_are_not_normalized(self):
        assert absolutize("../other/seg.ts", BASE) == "http://origin/path/../other/seg.ts"

    def test_base_query_is_ignored(self):
        base = "http://origin/path/live.m3u8?token=a/b&exp=1"
        assert absolutize("seg.ts", base) == "http://origin/path/seg.ts"

    def test_reference_query_is_kept(self):
        assert absolutize("seg.ts?n=1", BASE) == "http://origin/path/seg.ts?n=1"

    def test_base_without_path(self):
        assert absolutize("seg.ts", "http://origin") == "http://origin/seg.ts"

    def test_protocol_relative_reference(self):
        assert (
            absolutize("//cdn.example.com/seg.ts", "https://origin/live.m3u8")
            == "https://cdn.example.com/seg.ts"
        )


class TestBaseDirectory:
    def test_directory_of_file(self):
        assert base_directory(BASE) == "http://origin/path/"

    def test_directory_of_directory(self):
        assert base_directory("http://origin/path/") == "http://origin/path/"


class TestToProxyUrl:
    def test_percent_encodes_everything_reserved(self):
        assert (
            to_proxy_url("http://origin/path/segment1.ts", PROXY_BASE)
            == "http://testserver/proxy?url=http%3A%2F%2Forigin%2Fpath%2Fsegment1.ts"
        )

    def test_query_of_target_is_encoded(self):
        proxied = to_proxy_url("http://origin/a.ts?x=1&y=2", PROXY_BASE)
        assert "&" not in proxied
        assert decoded_target(proxied) == "http://origin/a.ts?x=1&y=2"

    def test_unreserved_characters_kept(self):
        assert to_proxy_url("http://o/a-b_c.d~e", PROXY_BASE).endswith("a-b_c.d~e")

    def test_undecodable_manifest_bytes_are_percent_encoded_as_bytes(self):
        absolute = b"http://origin/Caf\xe9.ts".decode("utf-8", "surrogateescape")
        assert to_proxy_url(absolute, PROXY_BASE) == (
            "http://testserver/proxy?url=http%3A%2F%2Forigin%2FCaf%E9.ts"
        )


@pytest.mark.parametrize(
    "reference",
    [
        "segment1.ts",
        "/root/seg 2.ts",
        "sub/dir/seg.ts?token=abc%2F&x=1",
        "../up.ts",
        "key.bin",
        "//cdn.example.com/seg.ts",
    ],
)
def test_proxy_round_trip(reference):
    absolute = absolutize(reference, BASE)
    target = decoded_target(to_proxy_url(absolute, PROXY_BASE))
    assert target == absolute
    assert absolutize(target, "") == absolute
