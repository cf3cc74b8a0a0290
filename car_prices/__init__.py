"""
car_prices package initializer.

This package contains the project source code for cleaning the used-car
listings dataset, exploring it, and fitting and comparing price models.

Modules
-------
- config: Central configuration, path constants and modelling defaults.
- errors: Exception hierarchy shared by all stages.
- features: Field extraction from the raw listing text.
- data: Loading, persistence, filtering and exploratory summaries.
- models: Model fitting, comparison, diagnostics and prediction utilities.
- pipeline: End-to-end batch run.
"""
