"""distill: turn uploaded project documents into a dated, compressible knowledge base."""
