"""holorag retrieval engines: knowledge text, vector corpus, episodic memory."""
