"""Auto-solver for catalog-driven quiz pages in a Playwright browser."""
