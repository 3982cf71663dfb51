"""Shopify services and workflows for shopbulk."""
