"""Giro Clearing API"""
