"""kiss-drop file drop server."""
