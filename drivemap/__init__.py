"""drivemap — compile drive-mapping workbooks into Group Policy Preferences."""

__version__ = "0.1.0"
