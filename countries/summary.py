import datetime
import json
import logging
import os

from django.conf import settings
from PIL import Image, ImageDraw

logger = logging.getLogger(__name__)

IMAGE_NAME = "summary.png"
JSON_NAME = "summary.json"
TOP_N = 5


def _cache_dir(cache_dir=None):
    return cache_dir or settings.SUMMARY_CACHE_DIR


def summary_image_path(cache_dir=None):
    return os.path.join(_cache_dir(cache_dir), IMAGE_NAME)


def summary_json_path(cache_dir=None):
    return os.path.join(_cache_dir(cache_dir), JSON_NAME)


def generate_summary(store, cache_dir=None):
    """
    Render the summary image and JSON snapshot from the current store state.

    Both hold the total country count and the top 5 countries by estimated
    GDP. Returns the snapshot dict that was written.
    """
    cache_dir = _cache_dir(cache_dir)
    total, _ = store.count_and_last_refresh()
    top_countries = store.top_by_gdp(TOP_N)
    generated_at = datetime.datetime.now(datetime.timezone.utc)

    snapshot = {
        "total_countries": total,
        "top_countries": [
            {"name": c.name, "estimated_gdp": round(c.estimated_gdp, 2)} for c in top_countries
        ],
        "generated_at": generated_at.isoformat(),
    }

    os.makedirs(cache_dir, exist_ok=True)

    img = Image.new("RGB", (600, 400), color=(255, 255, 255))
    draw = ImageDraw.Draw(img)

    draw.text((20, 20), f"Total Countries: {total}", fill="black")
    draw.text((20, 60), f"Top {TOP_N} by GDP:", fill="black")

    y = 100
    for entry in snapshot["top_countries"]:
        draw.text((40, y), f"{entry['name']}: {entry['estimated_gdp']:,.2f}", fill="black")
        y += 30

    draw.text((20, 300), f"Last Refresh: {generated_at:%Y-%m-%d %H:%M:%S} UTC", fill="gray")

    img.save(summary_image_path(cache_dir))
    with open(summary_json_path(cache_dir), "w") as f:
        json.dump(snapshot, f, indent=2)

    logger.info("Summary snapshot written to %s", cache_dir)
    return snapshot
