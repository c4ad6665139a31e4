"""Configuration and schemas shared by the controller and the webhook"""
