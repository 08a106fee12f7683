"""Domain core: models, validation, identity resolution, aggregation and filtering."""
