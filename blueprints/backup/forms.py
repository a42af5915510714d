from wtforms import BooleanField, IntegerField
from wtforms.validators import NumberRange, Optional

from utils.forms import ApiForm

# JSON key -> BackupConfig column
CONFIG_COLUMNS = {
    'enabled': 'enabled',
    'intervalHours': 'interval_hours',
    'maxBackups': 'max_backups',
    'retentionDays': 'retention_days',
}


class BackupConfigForm(ApiForm):
    enabled = BooleanField('Enabled', false_values=('false', '0', ''))
    intervalHours = IntegerField('Interval (hours)', validators=[
        Optional(),
        NumberRange(min=1, max=168, message='Interval must be between 1 and 168 hours')
    ])
    maxBackups = IntegerField('Max Backups', validators=[
        Optional(),
        NumberRange(min=1, max=100, message='Max backups must be between 1 and 100')
    ])
    retentionDays = IntegerField('Retention (days)', validators=[
        Optional(),
        NumberRange(min=1, max=365, message='Retention must be between 1 and 365 days')
    ])

    def config_values(self, data):
        """Column values for the keys present in *data*."""
        return {CONFIG_COLUMNS[key]: value for key, value in self.provided(data).items()
                if value is not None or key == 'enabled'}
