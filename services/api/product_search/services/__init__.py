"""Search, recommendation and catalog logic.

Routes call into services; services reach backing systems only through
`product_search.stores` and the HTTP clients defined here (WooCommerce,
Qdrant, OpenAI embeddings).
"""
