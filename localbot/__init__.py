"""LocalBot knowledge retrieval core.

Keeps each chatbot's vector index in step with its Q&A pairs and turns a
visitor's question into ranked candidate answers:
- Sync: embed Q&A pairs and upsert/delete their vectors (Pinecone or ChromaDB)
- Retrieve: embed the question and query the index filtered by chatbot_id
- Answer: direct match above a threshold, otherwise GPT with FAQ context
"""

__version__ = "0.1.0"
