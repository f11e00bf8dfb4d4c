"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Web page and sitemap loading
- Text chunking with overlap
- FAISS vector storage
- Retrieval with query expansion
- Keyword re-ranking
- Context assembly and answer generation
"""
