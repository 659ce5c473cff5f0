"""HTTP connectors: rate-limited fetching and MultiversX API endpoints."""
