"""
Model utilities package.

This package contains helper modules for fitting price models, comparing them
and persisting them. Typical entrypoints are:

- car_prices.models.train.MODEL_FITTERS        : name -> fitter for every compared model
- car_prices.models.train.bootstrap_coefficients(): coefficient stability of the linear model
- car_prices.models.evaluate.compare_models()   : fit all models and build the metrics table
- car_prices.models.diagnostics.ols_diagnostics(): inference tables for the linear model
- car_prices.models.predict.predict_price()     : load a saved model and predict one listing
"""
