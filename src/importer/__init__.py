"""Import of JSON, CSV and ICS files into the entity store."""
