"""Terminal, JSON, CSV and comparison reports for benchmark runs."""