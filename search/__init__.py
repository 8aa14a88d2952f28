"""
search: federated search over the user's connected providers.

  • One adapter per provider (Slack, Notion, Google Drive), each normalizing
    its wire response into ``utils.schemas`` result models
  • ``FederatedSearch`` fans a query out to every connected provider
    concurrently and merges the results in a fixed provider order
"""
