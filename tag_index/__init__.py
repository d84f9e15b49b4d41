"""
Tag Index - tags/people counter indexes backed by a single DynamoDB table.

Record Shape: {"id": <slot>, "indexKeys": {<key>: <count>}, "updatedAt": <epoch ms>}
"""

__version__ = "0.3.0"

# Fixed slot identifiers (one DynamoDB item each)
TAGS_ID = "tags"
PEOPLE_ID = "people"
SLOTS = (TAGS_ID, PEOPLE_ID)

# Nested map attribute holding the counters
INDEX_KEYS_PROP = "indexKeys"
UPDATED_AT_PROP = "updatedAt"
