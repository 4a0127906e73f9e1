import socket
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import pytest

from rssagg.rss import RSSChannel, RSSFeed, RSSItem, parse_feed, url_to_feed

SAMPLE = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Example Blog</title>
    <link>https://example.com/</link>
    <description>Posts about things</description>
    <language>en-us</language>
    <item>
      <title>First post</title>
      <link>https://example.com/first</link>
      <description><![CDATA[<p>Hello</p>]]></description>
      <pubDate>Mon, 02 Jan 2006 15:04:05 -0700</pubDate>
    </item>
    <item>
      <title>Second post</title>
      <link>https://example.com/second</link>
      <pubDate>Tue, 03 Jan 2006 15:04:05 -0700</pubDate>
    </item>
  </channel>
</rss>
"""


def test_parse_channel_fields():
    feed = parse_feed(SAMPLE.encode())
    channel = feed.channel
    assert channel.title == "Example Blog"
    assert channel.link == "https://example.com/"
    assert channel.description == "Posts about things"
    assert channel.language == "en-us"


def test_parse_items():
    items = parse_feed(SAMPLE).channel.items
    assert items == [
        RSSItem(
            title="First post",
            link="https://example.com/first",
            description="<p>Hello</p>",
            pub_date="Mon, 02 Jan 2006 15:04:05 -0700",
        ),
        RSSItem(
            title="Second post",
            link="https://example.com/second",
            description="",
            pub_date="Tue, 03 Jan 2006 15:04:05 -0700",
        ),
    ]


def test_document_without_channel_gives_empty_feed():
    assert parse_feed("<rss></rss>") == RSSFeed(channel=RSSChannel())


def test_nested_element_text_is_ignored():
    feed = parse_feed("<rss><channel><title>A<b>x</b>B</title></channel></rss>")
    assert feed.channel.title == "AB"


def test_namespaced_elements_match_by_local_name():
    doc = '<rss xmlns:dc="urn:example"><channel><dc:language>fr</dc:language></channel></rss>'
    assert parse_feed(doc).channel.language == "fr"


@pytest.mark.parametrize("data", ["", "<rss><channel>", "not xml at all"])
def test_malformed_xml_raises(data):
    with pytest.raises(ValueError):
        parse_feed(data)


class _Handler(BaseHTTPRequestHandler):
    def do_GET(self):
        body = SAMPLE.encode()
        self.send_response(404 if self.path == "/missing" else 200)
        self.send_header("Content-Type", "application/rss+xml")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, *args):
        pass


@pytest.fixture
def server_url():
    server = HTTPServer(("127.0.0.1", 0), _Handler)
    thread = threading.Thread(target=server.serve_forever, daemon=True)
    thread.start()
    yield f"http://127.0.0.1:{server.server_address[1]}"
    server.shutdown()
    server.server_close()


def test_url_to_feed_downloads_and_parses(server_url):
    feed = url_to_feed(server_url + "/feed.xml")
    assert feed == parse_feed(SAMPLE)


def test_url_to_feed_reads_body_of_error_status(server_url):
    feed = url_to_feed(server_url + "/missing", timeout=5)
    assert feed.channel.title == "Example Blog"


def test_url_to_feed_connection_failure():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]
    with pytest.raises(OSError):
        url_to_feed(f"http://127.0.0.1:{port}/feed.xml", timeout=2)