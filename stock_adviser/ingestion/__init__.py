"""
Ingestion layer — market-data providers and the live Alpha Vantage client.

Submodules:
  alpha_vantage_client — Alpha Vantage GLOBAL_QUOTE / OVERVIEW / TIME_SERIES_DAILY
                         client, snapshot assembly and batched fetching
  stored_provider      — serves the latest ingested snapshot from SQLite

Credential placement (.env, gitignored):
  ALPHA_VANTAGE_API_KEY      — Alpha Vantage API key
"""
