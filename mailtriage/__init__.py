"""Mail triage: classify unread Gmail messages, reply, label and archive them."""
__version__ = "0.1.0"
