"""Interactive command-line client for a KISSDrop server."""
