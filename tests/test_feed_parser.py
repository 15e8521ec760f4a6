"""
Unit tests for feed parser module.
"""

import unittest

from feed_bouncer.feed_items import (
    GenericEntry,
    GenericFeedHeader,
    RssChannelHeader,
    RssItem,
    item_content_link,
    item_publish_date,
)
from feed_bouncer.feed_parser import FeedParser

RSS_DOCUMENT = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Tech Blog</title>
    <link>https://example.com/</link>
    <description>Posts about tech</description>
    <language>en</language>
    <item>
      <title>Tech Blog - Newer Post</title>
      <link>https://example.com/2</link>
      <guid>https://example.com/2</guid>
      <pubDate>Tuesday, 02 Jan 2024 10:00:00 GMT</pubDate>
      <description>Second</description>
    </item>
    <item>
      <title>Older Post</title>
      <link>https://example.com/1</link>
      <pubDate>Mon, 01 Jan 2024 10:00:00 GMT</pubDate>
      <category>news</category>
    </item>
  </channel>
</rss>"""

ATOM_DOCUMENT = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Example</title>
  <id>urn:example:feed</id>
  <updated>2024-01-03T00:00:00Z</updated>
  <link href="https://atom.example.com/"/>
  <entry>
    <title>Entry One</title>
    <id>urn:example:1</id>
    <link href="https://atom.example.com/1"/>
    <published>2024-01-01T00:00:00Z</published>
    <updated>2024-01-01T00:00:00Z</updated>
    <summary>First entry</summary>
  </entry>
</feed>"""

JSON_FEED_DOCUMENT = b"""{
  "version": "https://jsonfeed.org/version/1.1",
  "title": "JSON Example",
  "home_page_url": "https://json.example.com/",
  "feed_url": "https://json.example.com/feed.json",
  "authors": [{"name": "Jane"}],
  "items": [
    {
      "id": "2",
      "title": "Second",
      "url": "https://json.example.com/2",
      "content_text": "Later post",
      "date_published": "2024-01-02T10:00:00Z",
      "tags": ["news"]
    },
    {
      "id": "1",
      "title": "First",
      "url": "https://json.example.com/1",
      "content_html": "<p>Earlier post</p>",
      "date_published": "2024-01-01T10:00:00Z",
      "date_modified": "2024-01-05T10:00:00Z"
    }
  ]
}"""


class TestFeedParser(unittest.TestCase):

    def setUp(self):
        self.parser = FeedParser()

    def test_parse_rss(self):
        parsed = self.parser.parse(RSS_DOCUMENT, "https://example.com/feed.xml")

        self.assertIsNotNone(parsed)
        self.assertIsInstance(parsed.header, RssChannelHeader)
        self.assertEqual(parsed.title, "Tech Blog")
        self.assertEqual(parsed.header.language, "en")
        self.assertEqual(len(parsed.items), 2)
        self.assertTrue(all(isinstance(item, RssItem) for item in parsed.items))

    def test_rss_items_sorted_oldest_first(self):
        parsed = self.parser.parse(RSS_DOCUMENT, "https://example.com/feed.xml")

        titles = [item.title for item in parsed.items]
        self.assertEqual(titles, ["Older Post", "Tech Blog - Newer Post"])

    def test_rss_item_keeps_raw_values(self):
        parsed = self.parser.parse(RSS_DOCUMENT, "https://example.com/feed.xml")
        older = parsed.items[0]

        self.assertEqual(older.link, "https://example.com/1")
        self.assertEqual(older.pub_date, "Mon, 01 Jan 2024 10:00:00 GMT")
        self.assertEqual(older.categories, ["news"])

    def test_parse_atom_as_generic(self):
        parsed = self.parser.parse(ATOM_DOCUMENT, "https://atom.example.com/feed")

        self.assertIsNotNone(parsed)
        self.assertIsInstance(parsed.header, GenericFeedHeader)
        self.assertEqual(parsed.title, "Atom Example")
        self.assertEqual(len(parsed.items), 1)

        entry = parsed.items[0]
        self.assertIsInstance(entry, GenericEntry)
        self.assertEqual(entry.title, "Entry One")
        self.assertEqual(entry.links[0]["href"], "https://atom.example.com/1")

    def test_parse_json_feed(self):
        parsed = self.parser.parse(JSON_FEED_DOCUMENT, "https://json.example.com/feed.json")

        self.assertIsNotNone(parsed)
        self.assertIsInstance(parsed.header, GenericFeedHeader)
        self.assertEqual(parsed.title, "JSON Example")
        self.assertEqual(parsed.header.feed_type, "json11")
        self.assertEqual(parsed.header.authors, [{"name": "Jane"}])
        self.assertEqual(
            [link["href"] for link in parsed.header.links],
            ["https://json.example.com/", "https://json.example.com/feed.json"],
        )

    def test_json_feed_items_sorted_oldest_first(self):
        parsed = self.parser.parse(JSON_FEED_DOCUMENT, "https://json.example.com/feed.json")

        self.assertEqual([item.title for item in parsed.items], ["First", "Second"])
        first, second = parsed.items
        self.assertIsInstance(first, GenericEntry)
        self.assertEqual(first.published, "2024-01-01T10:00:00Z")
        self.assertEqual(first.updated, "2024-01-05T10:00:00Z")
        self.assertEqual(first.content, "<p>Earlier post</p>")
        self.assertEqual(item_content_link(first), "https://json.example.com/1")
        self.assertEqual(item_publish_date(first).isoformat(), "2024-01-01T10:00:00+00:00")
        self.assertEqual(second.categories, ["news"])

    def test_json_without_feed_version_is_not_a_feed(self):
        body = b'{"version": "1", "items": []}'
        self.assertIsNone(self.parser.parse(body, "https://example.com/data.json"))

    def test_split_header(self):
        parsed = self.parser.parse(RSS_DOCUMENT, "https://example.com/feed.xml")
        header, items = parsed.split_header()
        self.assertIs(header, parsed.header)
        self.assertIs(items, parsed.items)

    def test_garbage_is_not_a_feed(self):
        self.assertIsNone(self.parser.parse(b"this is not a feed at all", "https://example.com/x"))

    def test_empty_body_is_not_a_feed(self):
        self.assertIsNone(self.parser.parse(b"", "https://example.com/x"))


if __name__ == '__main__':
    unittest.main()
