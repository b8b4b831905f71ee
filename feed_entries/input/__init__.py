from .json_parser import load_feed_export, parse_feed_export, parse_timestamp

__all__ = ["load_feed_export", "parse_feed_export", "parse_timestamp"]
