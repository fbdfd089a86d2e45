"""Fixed thresholds shared by the classifiers and the orchestrator.

These are not part of Settings and cannot be overridden per caller.
"""

# Card type: text beyond either threshold needs truncation, so the card is hybrid.
TEXT_LENGTH_THRESHOLD = 200
LINE_COUNT_THRESHOLD = 3

# Edit mode substitutes this tag rather than rejecting an existing record.
SENTINEL_TAG = "uncategorized"

GALLERY_CAPTION_MAX_LENGTH = 80
EXCERPT_MAX_LENGTH = 150
EXCERPT_ELLIPSIS = "..."

READ_WORDS_PER_MINUTE = 200

# Provider tag stamped on titles fetched from YouTube oEmbed.
YOUTUBE_TITLE_SOURCE = "youtube-oembed"
OPEN_GRAPH_TITLE_SOURCE = "open-graph"
