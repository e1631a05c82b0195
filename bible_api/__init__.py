"""
Bible Search API

Answers Bible questions and writes personalized prayers from
Pinecone verse search + OpenAI completions.
"""

__version__ = "1.0.0"
