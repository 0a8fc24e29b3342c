"""Demo YouTube Data API fixtures for test mode.

These fixtures mirror the ``items`` entries returned by
``GET /youtube/v3/videos?part=snippet,contentDetails,statistics`` so the
real provider parsing runs without contacting Google. Used when
APP_TESTING_TEST_MODE=true.
"""

import copy
from typing import Any, Dict, Optional

# Id that the mock API reports as missing
NOT_FOUND_VIDEO_ID = "unavailable0"

# Demo video: seated knee extension routine
KNEE_EXTENSION_VIDEO: Dict[str, Any] = {
    "kind": "youtube#video",
    "id": "dQw4w9WgXcQ",
    "snippet": {
        "publishedAt": "2021-03-14T09:30:00Z",
        "channelId": "UCRehabPhysioDemo01",
        "title": "Seated Knee Extension - Post-Op Rehab Exercise",
        "description": (
            "A gentle seated knee extension for the first weeks after knee surgery.\n\n"
            "Hold each repetition for five seconds and stop if you feel sharp pain."
        ),
        "thumbnails": {
            "default": {"url": "https://i.ytimg.com/vi/dQw4w9WgXcQ/default.jpg", "width": 120, "height": 90},
            "medium": {"url": "https://i.ytimg.com/vi/dQw4w9WgXcQ/mqdefault.jpg", "width": 320, "height": 180},
            "high": {"url": "https://i.ytimg.com/vi/dQw4w9WgXcQ/hqdefault.jpg", "width": 480, "height": 360},
        },
        "channelTitle": "Rehab Physio Demo",
        "tags": ["knee", "rehab", "physiotherapy", "post-op"],
        "categoryId": "26",
    },
    "contentDetails": {"duration": "PT4M13S", "definition": "hd", "caption": "true"},
    "statistics": {"viewCount": "125000", "likeCount": "3200", "commentCount": "210"},
}

# Demo video: longer shoulder mobility session
SHOULDER_MOBILITY_VIDEO: Dict[str, Any] = {
    "kind": "youtube#video",
    "id": "jNQXAC9IVRw",
    "snippet": {
        "publishedAt": "2022-07-02T17:05:00Z",
        "channelId": "UCRehabPhysioDemo02",
        "title": "Full Shoulder Mobility Session",
        "description": "Pendulum swings, wall slides and band external rotations.",
        "thumbnails": {
            "default": {"url": "https://i.ytimg.com/vi/jNQXAC9IVRw/default.jpg", "width": 120, "height": 90},
        },
        "channelTitle": "Shoulder Clinic",
        "tags": ["shoulder", "mobility"],
        "categoryId": "17",
    },
    "contentDetails": {"duration": "PT1H2M3S", "definition": "hd", "caption": "false"},
    "statistics": {"viewCount": "8800", "likeCount": "410"},
}

# Generic demo item for unknown ids in test mode
GENERIC_DEMO_VIDEO: Dict[str, Any] = {
    "kind": "youtube#video",
    "id": "DEMO_VIDEO",
    "snippet": {
        "publishedAt": "2024-01-01T00:00:00Z",
        "channelId": "UCTestChannel123",
        "title": "Demo Exercise Video",
        "description": "This is a demo exercise video for testing purposes.",
        "thumbnails": {
            "medium": {"url": "https://example.com/thumbnail.jpg", "width": 320, "height": 180},
        },
        "channelTitle": "Test Channel",
        "tags": ["demo", "test"],
        "categoryId": "22",
    },
    "contentDetails": {"duration": "PT1M"},
    "statistics": {"viewCount": "1000", "likeCount": "100"},
}

# Map of video IDs to fixtures
DEMO_VIDEOS: Dict[str, Dict[str, Any]] = {
    "dQw4w9WgXcQ": KNEE_EXTENSION_VIDEO,
    "jNQXAC9IVRw": SHOULDER_MOBILITY_VIDEO,
}


def get_demo_video(video_id: str) -> Optional[Dict[str, Any]]:
    """Get the Data API item for a video ID.

    Args:
        video_id: YouTube video ID to look up

    Returns:
        Copy of the demo item. Unknown ids get the generic demo under their
        own id; ``NOT_FOUND_VIDEO_ID`` returns None.
    """
    if video_id == NOT_FOUND_VIDEO_ID:
        return None

    item = copy.deepcopy(DEMO_VIDEOS.get(video_id, GENERIC_DEMO_VIDEO))
    item["id"] = video_id
    return item
