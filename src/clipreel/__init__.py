"""clipreel — compile short clips into vertical social videos.

Acquire clips through a fallback chain of download strategies, reframe
them around the streamer camera, join an optional intro/outro, and track
each run as a job with state and progress.
"""

__version__ = "0.1.0"
