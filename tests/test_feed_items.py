"""
Unit tests for canonical feed items and their accessors.
"""

import unittest
from datetime import datetime, timedelta, timezone

from feed_bouncer.feed import Feed
from feed_bouncer.feed_items import (
    GenericEntry,
    ItemMeta,
    RssChannelHeader,
    RssItem,
    header_from_dict,
    header_to_dict,
    item_content_link,
    item_from_dict,
    item_key,
    item_publish_date_or_old,
    item_to_dict,
    sort_items,
    strip_title_prefixes,
)
from feed_bouncer.utils.helpers import OLD_DATE


class TestItemAccessors(unittest.TestCase):

    def test_rss_date_with_full_weekday_name(self):
        item = RssItem(title="a", pub_date="Monday, 01 Jan 2024 10:00:00 +0000")
        self.assertEqual(
            item_publish_date_or_old(item),
            datetime(2024, 1, 1, 10, 0, tzinfo=timezone.utc),
        )

    def test_unparseable_date_falls_back_to_sentinel(self):
        item = RssItem(title="a", pub_date="sometime last week")
        self.assertEqual(item_publish_date_or_old(item), OLD_DATE)

    def test_missing_date_falls_back_to_sentinel(self):
        self.assertEqual(item_publish_date_or_old(RssItem(title="a")), OLD_DATE)

    def test_sentinel_value(self):
        self.assertEqual(OLD_DATE, datetime(1996, 12, 20, 0, 39, 57, tzinfo=timezone.utc))
        self.assertEqual(OLD_DATE.utcoffset(), timedelta(hours=-8))

    def test_generic_date_uses_published_then_updated(self):
        entry = GenericEntry(title="a", updated="2024-02-03T04:05:06Z")
        self.assertEqual(
            item_publish_date_or_old(entry),
            datetime(2024, 2, 3, 4, 5, 6, tzinfo=timezone.utc),
        )

    def test_content_link(self):
        self.assertEqual(item_content_link(RssItem(link="https://x/1")), "https://x/1")
        entry = GenericEntry(links=[{"href": "https://x/2", "rel": "alternate"}])
        self.assertEqual(item_content_link(entry), "https://x/2")
        self.assertIsNone(item_content_link(GenericEntry()))

    def test_item_key_uses_raw_strings(self):
        item = RssItem(title="Post", pub_date="Mon, 01 Jan 2024 10:00:00 GMT")
        self.assertEqual(item_key(item), ("Post", "Mon, 01 Jan 2024 10:00:00 GMT"))

    def test_accessors_reject_unknown_types(self):
        with self.assertRaises(TypeError):
            item_key({"title": "not an item"})


class TestSortItems(unittest.TestCase):

    def test_sorts_by_date_ascending(self):
        items = [
            RssItem(title="c", pub_date="Wed, 03 Jan 2024 00:00:00 GMT"),
            RssItem(title="a", pub_date="Mon, 01 Jan 2024 00:00:00 GMT"),
            RssItem(title="b", pub_date="Tue, 02 Jan 2024 00:00:00 GMT"),
        ]
        sort_items(items)
        self.assertEqual([i.title for i in items], ["a", "b", "c"])

    def test_sort_is_stable_for_equal_dates(self):
        date = "Mon, 01 Jan 2024 00:00:00 GMT"
        items = [RssItem(title=str(n), pub_date=date) for n in range(5)]
        sort_items(items)
        self.assertEqual([i.title for i in items], ["0", "1", "2", "3", "4"])

    def test_undated_items_sort_first(self):
        items = [RssItem(title="dated", pub_date="Mon, 01 Jan 2024 00:00:00 GMT"), RssItem(title="undated")]
        sort_items(items)
        self.assertEqual([i.title for i in items], ["undated", "dated"])

    def test_sort_with_key(self):
        metas = [
            ItemMeta(0, RssItem(title="late", pub_date="Tue, 02 Jan 2024 00:00:00 GMT")),
            ItemMeta(1, RssItem(title="early", pub_date="Mon, 01 Jan 2024 00:00:00 GMT")),
        ]
        sort_items(metas, key=lambda meta: meta.item)
        self.assertEqual([m.id for m in metas], [1, 0])


class TestTitlePrefixes(unittest.TestCase):

    def test_strips_name_and_separator(self):
        self.assertEqual(strip_title_prefixes("Tech Blog - New Release", ["Tech Blog"]), "New Release")

    def test_strips_colon_separator(self):
        self.assertEqual(strip_title_prefixes("Tech Blog: New Release", ["Tech Blog"]), "New Release")

    def test_longest_prefix_first(self):
        prefixes = ["Tech", "Tech Blog"]
        self.assertEqual(strip_title_prefixes("Tech Blog - Post", prefixes), "Post")

    def test_unrelated_title_untouched(self):
        self.assertEqual(strip_title_prefixes("  Something else ", ["Tech Blog"]), "Something else")

    def test_display_title_without_prefixes_uses_aliases(self):
        feed = Feed(name="Tech Blog", title_aliases={"TB Weekly"})
        meta = ItemMeta(0, RssItem(title="TB Weekly: Issue 12"))
        self.assertEqual(meta.display_title_without_prefixes(feed), "Issue 12")
        self.assertEqual(
            ItemMeta(1, RssItem(title="Tech Blog - New Release")).display_title_without_prefixes(feed),
            "New Release",
        )


class TestSerialization(unittest.TestCase):

    def test_items_carry_kind_tag(self):
        self.assertEqual(item_to_dict(RssItem(title="a"))["kind"], "rss")
        self.assertEqual(item_to_dict(GenericEntry(title="a"))["kind"], "generic")

    def test_item_restored_from_dict(self):
        entry = GenericEntry(title="a", links=[{"href": "https://x"}], published="2024-01-01T00:00:00Z")
        self.assertEqual(item_from_dict(item_to_dict(entry)), entry)

    def test_header_restored_from_dict(self):
        header = RssChannelHeader(title="T", link="https://x", categories=["a"])
        self.assertEqual(header_from_dict(header_to_dict(header)), header)

    def test_unknown_fields_ignored(self):
        data = {"kind": "rss", "title": "a", "something_new": 1}
        self.assertEqual(item_from_dict(data), RssItem(title="a"))

    def test_unknown_kind_rejected(self):
        with self.assertRaises(ValueError):
            item_from_dict({"kind": "podcast", "title": "a"})


if __name__ == '__main__':
    unittest.main()
