"""Local registry of downloaded model files and their disk layout."""