"""Resilient model-request pipeline and layered prompt composer."""
