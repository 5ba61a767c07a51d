"""Constants for the Cloudflare Operator."""

# API Group
API_GROUP = "networking.cloudflare-operator.io"
API_VERSION = "v1alpha2"
API_GROUP_VERSION = f"{API_GROUP}/{API_VERSION}"

# Resource Kinds
KIND_CREDENTIALS = "CloudflareCredentials"
KIND_DOMAIN = "CloudflareDomain"
KIND_R2_BUCKET = "R2Bucket"
KIND_R2_BUCKET_DOMAIN = "R2BucketDomain"
KIND_R2_BUCKET_NOTIFICATION = "R2BucketNotification"
KIND_DOMAIN_REGISTRATION = "DomainRegistration"
KIND_IDENTITY_PROVIDER = "AccessIdentityProvider"

# Plurals used with CustomObjectsApi
PLURAL_CREDENTIALS = "cloudflarecredentials"
PLURAL_DOMAIN = "cloudflaredomains"
PLURAL_R2_BUCKET = "r2buckets"
PLURAL_R2_BUCKET_DOMAIN = "r2bucketdomains"
PLURAL_R2_BUCKET_NOTIFICATION = "r2bucketnotifications"
PLURAL_DOMAIN_REGISTRATION = "domainregistrations"
PLURAL_IDENTITY_PROVIDER = "accessidentityproviders"

# Finalizers
FINALIZER = f"{API_GROUP}/finalizer"

# Controller name used in structured logs
CONTROLLER_NAME = "cloudflare-operator"

# Credentials
AUTH_TYPE_API_TOKEN = "apiToken"
AUTH_TYPE_GLOBAL_API_KEY = "globalAPIKey"
DEFAULT_API_TOKEN_KEY = "CLOUDFLARE_API_TOKEN"
DEFAULT_API_KEY_KEY = "CLOUDFLARE_API_KEY"
DEFAULT_EMAIL_KEY = "CLOUDFLARE_EMAIL"

# Deletion policies
DELETION_POLICY_DELETE = "Delete"
DELETION_POLICY_ORPHAN = "Orphan"

# Lifecycle states
STATE_PENDING = "Pending"
STATE_VERIFYING = "Verifying"
STATE_CREATING = "Creating"
STATE_INITIALIZING = "Initializing"
STATE_SYNCING = "Syncing"
STATE_READY = "Ready"
STATE_ACTIVE = "Active"
STATE_DELETING = "Deleting"
STATE_TRANSFER_PENDING = "TransferPending"
STATE_EXPIRED = "Expired"
STATE_ERROR = "Error"

# Condition Types
COND_READY = "Ready"
COND_CREDENTIALS_RESOLVED = "CredentialsResolved"
COND_ZONE_RESOLVED = "ZoneResolved"
COND_DEPENDENCY_READY = "DependencyReady"
COND_SYNCED = "Synced"
COND_DEFAULT_CONFLICT = "DefaultConflict"
COND_CONTACT_DRIFT = "ContactDrift"
COND_DELETION_BLOCKED = "DeletionBlocked"

# Condition Reasons
REASON_RECONCILED = "Reconciled"
REASON_PROGRESSING = "Progressing"
REASON_TRANSIENT_ERROR = "TransientError"
REASON_CONFIGURATION_ERROR = "ConfigurationError"
REASON_PERMANENT_ERROR = "PermanentError"

# Event Reasons
EVENT_REASON_RECONCILE_STARTED = "ReconcileStarted"
EVENT_REASON_RECONCILE_FAILED = "ReconcileFailed"
EVENT_REASON_CREATED = "Created"
EVENT_REASON_UPDATED = "Updated"
EVENT_REASON_DELETED = "Deleted"
EVENT_REASON_ORPHANED = "Orphaned"
EVENT_REASON_DRIFT_DETECTED = "DriftDetected"
EVENT_REASON_DELETION_BLOCKED = "DeletionBlocked"
EVENT_REASON_DEPENDENCY_PENDING = "DependencyPending"
