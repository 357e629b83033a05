"""Knowledge base: embedding, vector index backends, and index sync.

- ingestion.embedder: embedding text policy and provider calls
- ingestion.sync: upsert/delete vectors as Q&A pairs change
- ingestion.backfill: bulk re-sync of a chatbot's stored pairs
- storage: Pinecone (production) and ChromaDB (local) index adapters
"""
