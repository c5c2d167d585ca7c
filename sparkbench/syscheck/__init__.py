"""Pre-flight system checks run before a benchmark."""