"""Admission webhook and health endpoints"""
