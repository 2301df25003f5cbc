"""Local runtime for serverless functions declared in a ``.functions`` folder."""
