"""Client-side tracking and notification engine for video generation jobs."""
