"""Bandwidth objective, optimizers, fitter and the gating experiment driver."""
